import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma separated list, "*" allows any origin (classroom LAN use)
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Question answer window (seconds)
    DEFAULT_DURATION_SEC = int(os.environ.get('DEFAULT_DURATION_SEC', '20'))
    MIN_DURATION_SEC = int(os.environ.get('MIN_DURATION_SEC', '5'))
    MAX_DURATION_SEC = int(os.environ.get('MAX_DURATION_SEC', '120'))
    # Countdown broadcast interval (seconds)
    TICK_INTERVAL_SEC = float(os.environ.get('TICK_INTERVAL_SEC', '1'))
    # Display names
    HOST_DISPLAY_NAME = os.environ.get('HOST_DISPLAY_NAME', 'HOST')
    DEFAULT_PLAYER_NAME = os.environ.get('DEFAULT_PLAYER_NAME', 'Student')
    # Input truncation limits (characters)
    MAX_NAME_LENGTH = int(os.environ.get('MAX_NAME_LENGTH', '40'))
    MAX_QUESTION_LENGTH = int(os.environ.get('MAX_QUESTION_LENGTH', '300'))
    MAX_CHOICE_LENGTH = int(os.environ.get('MAX_CHOICE_LENGTH', '120'))
    # Optional: evict rooms with nobody connected after this many idle seconds. 0 disables.
    ROOM_IDLE_TIMEOUT_SEC = int(os.environ.get('ROOM_IDLE_TIMEOUT_SEC', '0'))
    ROOM_SWEEP_INTERVAL_SEC = int(os.environ.get('ROOM_SWEEP_INTERVAL_SEC', '60'))
