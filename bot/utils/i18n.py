from __future__ import annotations

import json
import logging
from pathlib import Path

LOGGER = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).resolve().parent.parent / "config" / "locales"


class I18N:
    def __init__(self, base_dir: Path, default_locale: str) -> None:
        self.base_dir = base_dir
        self.default_locale = default_locale
        self._messages: dict[str, dict[str, str]] = {}

    def load_locale(self, locale: str) -> None:
        path = self.base_dir / f"{locale}.json"
        if not path.exists():
            LOGGER.warning("Locale file missing: %s", path)
            self._messages[locale] = {}
            return
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        if isinstance(payload, dict):
            self._messages[locale] = {str(k): str(v) for k, v in payload.items()}

    def _catalog(self, locale: str) -> dict[str, str]:
        if locale not in self._messages:
            self.load_locale(locale)
        return self._messages.get(locale, {})

    def t(self, key: str, locale: str | None = None, **kwargs: object) -> str:
        template = self._catalog(locale or self.default_locale).get(key)
        if template is None:
            template = self._catalog(self.default_locale).get(key, key)
        return template.format(**kwargs)
