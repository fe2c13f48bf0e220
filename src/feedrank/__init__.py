
from dotenv import load_dotenv

# Load environment variables from .env as early as possible so the settings
# model and the app lifespan see the configured values.
load_dotenv()
