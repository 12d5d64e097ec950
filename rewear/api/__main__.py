"""
rewear.api.__main__ — ``python -m rewear.api``
================================================
"""

from __future__ import annotations

import uvicorn
from dotenv import load_dotenv

from rewear.config import load_config


def main() -> None:
    load_dotenv()
    cfg = load_config()
    uvicorn.run("rewear.api.main:app", host="0.0.0.0", port=cfg.api_port)


if __name__ == "__main__":
    main()
