"""Classroom quiz rooms.

Room registry, presence, scoreboard, countdown timer and the per-room
state machine. Nothing in here imports Flask or Socket.IO; output leaves
through whatever broadcaster the gateway hands to ``RoomStateMachine``.
"""
