PROJECT_NAME = "Binevo"
API_V1_STR = "/api/v1"
VERSION = "0.1.0"

SESSION_COOKIE_NAME = "binevo_session"
