# Databricks notebook source
# MAGIC %md
# MAGIC # Structured Streaming: A Guided Tour
# MAGIC
# MAGIC This notebook walks through Spark Structured Streaming's declarative API one step at a time.
# MAGIC Every query is written exactly as it would be for a static DataFrame; Spark runs it incrementally.
# MAGIC
# MAGIC ## Learning Objectives
# MAGIC 1. Read unbounded input with `readStream` from a socket and from a directory of CSV files
# MAGIC 2. Derive schemas from typed record classes instead of writing them by hand
# MAGIC 3. Select, filter and aggregate with column expressions
# MAGIC 4. Join a stream against a static table
# MAGIC 5. Fall back to plain SQL over a registered view
# MAGIC 6. Choose an output mode (`append`, `complete`, `update`) and a sink
# MAGIC
# MAGIC ## Data
# MAGIC
# MAGIC | File | Description | Usage |
# MAGIC |------|-------------|-------|
# MAGIC | `data/people.txt` | `name,age` lines | Broadcast over TCP |
# MAGIC | `data/users.csv` | User master data | Static side of the join |
# MAGIC | `data/transactions/*.csv` | Purchases | Streamed one file per trigger |

# COMMAND ----------

# MAGIC %md
# MAGIC ---
# MAGIC # Setup

# COMMAND ----------

import time

from src.broadcaster import LineBroadcaster
from src.streaming import transforms
from src.streaming.models import Person, Transaction, User, spark_schema
from src.streaming.runner import start_query
from src.streaming.session import create_spark_session
from src.streaming.sources import csv_stream, socket_stream, static_csv
from src.utils.config import Config
from src.utils.logging import setup_logging

config = Config.from_env("StreamingTutorialNotebook")
setup_logging(level="WARNING", json_output=False)
spark = create_spark_session(config.spark)

print(f"Transactions directory: {config.data.transactions_dir}")
print(f"Users table: {config.data.users_path}")

# COMMAND ----------

# Stop any query left over from a previous run of this notebook
for query in spark.streams.active:
    print(f"Stopping query: {query.name or query.id}")
    query.stop()

# COMMAND ----------

# MAGIC %md
# MAGIC ---
# MAGIC # Part 1: A Socket Source
# MAGIC
# MAGIC The socket source reads newline-delimited text from a TCP port. It exists for experiments like
# MAGIC this one: it keeps no offsets and cannot replay data after a failure.
# MAGIC
# MAGIC Something has to be listening on that port. The broadcaster opens it, waits for one client,
# MAGIC and sends one line of `people.txt` per second. It runs on its own thread so this cell returns
# MAGIC immediately.

# COMMAND ----------

broadcaster = LineBroadcaster(
    path=config.broadcaster.source_path,
    host="localhost",
    port=config.broadcaster.port,
    delay_seconds=1.0,
    loop=True,
)
broadcaster.start()
broadcaster.wait_until_ready(timeout=10)
print(f"Broadcasting {broadcaster.path.name} on {broadcaster.address}")

# COMMAND ----------

lines = socket_stream(spark, "localhost", broadcaster.port)

print(f"Is streaming: {lines.isStreaming}")
lines.printSchema()

# COMMAND ----------

# MAGIC %md
# MAGIC ### Column expressions
# MAGIC
# MAGIC Each line is `name,age`. `split`, `trim` and `cast` turn it into typed columns; lines whose age
# MAGIC does not parse (there is one in the file) come out as `null` and are filtered away.

# COMMAND ----------

people = transforms.parse_people(lines)
adults = transforms.adults(people, min_age=18)

adults_query = start_query(adults, output_mode="append", sink="memory", query_name="adults")
time.sleep(8)
spark.sql("SELECT * FROM adults ORDER BY age").show()

# COMMAND ----------

# MAGIC %md
# MAGIC ### Output modes for aggregations
# MAGIC
# MAGIC - **append**: only new rows; not allowed for aggregations without a watermark
# MAGIC - **complete**: the whole result table on every trigger
# MAGIC - **update**: only the rows that changed since the last trigger
# MAGIC
# MAGIC The socket source only accepts one client, so stop the first query before starting another one
# MAGIC against a fresh broadcaster.

# COMMAND ----------

adults_query.stop()
broadcaster.stop()

broadcaster = LineBroadcaster(config.broadcaster.source_path, port=config.broadcaster.port, delay_seconds=0.5)
broadcaster.start()
broadcaster.wait_until_ready(timeout=10)

ages = transforms.count_by_age(transforms.parse_people(socket_stream(spark, "localhost", broadcaster.port)))
ages_query = start_query(ages, output_mode="update", sink="console", query_name="age_histogram")
time.sleep(10)
ages_query.stop()
broadcaster.stop()

# COMMAND ----------

# MAGIC %md
# MAGIC ---
# MAGIC # Part 2: A File Source with a Reflected Schema
# MAGIC
# MAGIC Streaming file sources refuse to infer a schema. Rather than spell out a `StructType`,
# MAGIC derive it from the `Transaction` record class: `int` becomes `long`, `float` becomes `double`,
# MAGIC `datetime` becomes `timestamp`, and `Optional` fields become nullable.

# COMMAND ----------

transaction_schema = spark_schema(Transaction)
print(transaction_schema.simpleString())

transactions = csv_stream(
    spark,
    config.data.transactions_dir,
    schema=transaction_schema,
    max_files_per_trigger=1,
)

# COMMAND ----------

spend_query = start_query(
    transforms.spend_per_user(transactions),
    output_mode="complete",
    sink="memory",
    query_name="spend_per_user",
)
spend_query.processAllAvailable()
spark.sql("SELECT * FROM spend_per_user ORDER BY total_amount DESC").show()
spend_query.stop()

# COMMAND ----------

# MAGIC %md
# MAGIC ---
# MAGIC # Part 3: Stream-Static Join
# MAGIC
# MAGIC The users table is read once as a normal DataFrame. Each micro-batch of transactions is joined
# MAGIC against it. User 6 has no entry in `users.csv`: the inner join drops those purchases, a left
# MAGIC outer join keeps them with a null country.

# COMMAND ----------

users = static_csv(spark, config.data.users_path, schema=spark_schema(User))
users.show()

enriched = transforms.enrich_transactions(transactions, users, how="left_outer")
enriched_query = start_query(enriched, output_mode="append", sink="memory", query_name="enriched")
enriched_query.processAllAvailable()
spark.sql("SELECT transaction_id, user_name, country, amount FROM enriched ORDER BY transaction_id").show()
enriched_query.stop()

# COMMAND ----------

# MAGIC %md
# MAGIC ---
# MAGIC # Part 4: The SQL Escape Hatch
# MAGIC
# MAGIC A streaming DataFrame can be registered as a temporary view and queried with SQL. The result is
# MAGIC again a streaming DataFrame.

# COMMAND ----------

large = transforms.run_sql(
    transactions,
    "transactions",
    "SELECT transaction_id, user_id, category, amount FROM transactions WHERE amount >= 100",
)
print(f"Is streaming: {large.isStreaming}")

large_query = start_query(large, output_mode="append", sink="memory", query_name="large_transactions")
large_query.processAllAvailable()
spark.sql("SELECT * FROM large_transactions ORDER BY amount DESC").show()
large_query.stop()

# COMMAND ----------

# MAGIC %md
# MAGIC ---
# MAGIC # Cleanup

# COMMAND ----------

for query in spark.streams.active:
    query.stop()
print("All streaming queries stopped")
