"""Entry point for running the memorial request service."""

from dotenv import load_dotenv

load_dotenv()

from remembrance import create_app  # noqa: E402

app = create_app()
