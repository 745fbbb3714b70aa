import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("entrypoint")


def main() -> None:
  """Launch the API server; tables are created during application startup."""
  port = os.getenv("PORT", "8000")
  logger.info("Starting application on port %s...", port)
  # Replace the current process so uvicorn receives SIGTERM directly.
  args = ["uvicorn", "app.main:app", "--host", "0.0.0.0", "--port", port, "--no-server-header"]
  os.execvp("uvicorn", args)


if __name__ == "__main__":
  main()
