import json
import os
import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

Cookie = Dict[str, Any]


def _is_cookie_record(record: Any) -> bool:
    return (
        isinstance(record, dict)
        and isinstance(record.get("name"), str)
        and isinstance(record.get("value"), str)
    )


class SessionStore:
    """Persists the browser cookie jar between runs as a JSON list of cookie records."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[List[Cookie]]:
        """Returns the saved cookies, or None when there is no usable session file."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                cookies = json.load(f)
        except FileNotFoundError:
            logger.info(f"No saved session at {self.path}")
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return None

        if not isinstance(cookies, list) or not all(_is_cookie_record(c) for c in cookies):
            logger.warning(f"Ignoring malformed session file {self.path}")
            return None
        return cookies

    def save(self, cookies: List[Cookie]) -> bool:
        """Writes the cookies to a temp file next to the target and renames it into place."""
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(list(cookies), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
            logger.info(f"Saved {len(cookies)} cookies to {self.path}")
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save session to {self.path}: {e}")
            return False
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
