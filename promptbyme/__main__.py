"""Run the API server: ``python -m promptbyme``."""

import uvicorn

from promptbyme.config import get_settings


def main() -> None:
    uvicorn.run("promptbyme.main:app", host="0.0.0.0", port=get_settings().port)


if __name__ == "__main__":
    main()
