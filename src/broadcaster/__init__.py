"""Line-by-line TCP broadcaster feeding the socket-source lessons."""

from .broadcaster import LineBroadcaster

__all__ = ["LineBroadcaster"]
