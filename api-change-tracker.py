#!/usr/bin/env python3
from change_tracker.src.main import main


if __name__ == "__main__":
    raise SystemExit(main())
