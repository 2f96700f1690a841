"""Offset Commit, Create Topics, Delete Topics, Fetch, Find Coordinator and Heartbeat messages."""