"""Graceful shutdown: callbacks run when a shutdown manager requests it."""