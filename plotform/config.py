import os

from dotenv import load_dotenv

load_dotenv()

SECRET_KEY = os.getenv(
    "SECRET_KEY",
    "0e6e9c1f30b74b7ca7f513e34ac9cf99c4fc527a63923d49bc154117812e8d8a",
)
ALGORITHM = os.getenv("ALGORITHM", "HS256")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
PLOTFORM_MODEL = os.getenv("PLOTFORM_MODEL", "gpt-4o-mini")
PLOTFORM_ENHANCE_MODEL = os.getenv("PLOTFORM_ENHANCE_MODEL", PLOTFORM_MODEL)

PLOTFORM_MAX_ATTEMPTS = int(os.getenv("PLOTFORM_MAX_ATTEMPTS", "4"))
PLOTFORM_BASE_DELAY_MS = int(os.getenv("PLOTFORM_BASE_DELAY_MS", "1500"))

PLOTFORM_STORE = os.getenv("PLOTFORM_STORE", "mongo")
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017/mydb")
MONGO_DB = os.getenv("MONGO_DB", "plotform")

DEFAULT_CATEGORY = os.getenv("DEFAULT_CATEGORY", "Podcast")


def devmode() -> bool:
    return os.getenv("DEVMODE") == "true"
