"""Localized strings loader."""

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .config import get_settings

logger = logging.getLogger(__name__)

# Used when no locales file is found
DEFAULT_STRINGS = {
    "en": {
        "embed": {
            "replies": {"one": "1 reply", "other": "%{count} replies"},
        },
    },
}


@dataclass
class Translations:
    """Localized strings keyed by locale, then by dotted key."""

    strings: dict = field(default_factory=lambda: copy.deepcopy(DEFAULT_STRINGS))
    default_locale: str = "en"

    def _lookup(self, locale: Optional[str], key: str):
        node = self.strings.get(locale) if locale else None
        for part in key.split("."):
            if not isinstance(node, dict):
                return None
            node = node.get(part)
        return node

    def _candidates(self, locale: Optional[str]) -> list[str]:
        candidates = []
        if locale:
            candidates.append(locale)
            if "_" in locale:
                candidates.append(locale.split("_", 1)[0])
        candidates.append(self.default_locale)
        return candidates

    def t(self, key: str, locale: Optional[str] = None, count: Optional[int] = None) -> str:
        """Translate a key, pluralizing on count.

        Falls back to the language without region, then the default locale,
        then the key itself.
        """
        entry = None
        for candidate in self._candidates(locale):
            entry = self._lookup(candidate, key)
            if entry is not None:
                break

        if entry is None:
            logger.warning(f"Missing translation for {key} in {locale}")
            return key

        if isinstance(entry, dict):
            form = "one" if count == 1 else "other"
            entry = entry.get(form, entry.get("other", key))

        text = str(entry)
        if count is not None:
            text = text.replace("%{count}", str(count))
        return text


def load_translations(locales_path: Optional[Path] = None) -> Translations:
    """Load localized strings from YAML file.

    Args:
        locales_path: Path to locales file. If None, uses the configured or
            default location.

    Returns:
        Translations with values from file merged over the defaults.
    """
    settings = get_settings()
    if locales_path is None:
        if settings.locales_file:
            locales_path = Path(settings.locales_file)
        else:
            # Default location relative to project root
            locales_path = Path(__file__).parent.parent.parent / "config" / "locales.yaml"

    translations = Translations(default_locale=settings.default_locale)

    if not locales_path.exists():
        logger.info(f"Locales file not found at {locales_path}, using defaults")
        return translations

    try:
        with open(locales_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        for locale, strings in data.items():
            if isinstance(strings, dict):
                translations.strings[str(locale)] = strings

        logger.info(f"Loaded {len(data)} locales from {locales_path}")
        return translations

    except yaml.YAMLError as e:
        logger.error(f"Failed to load locales from {locales_path}: {e}")
        return Translations(default_locale=settings.default_locale)


# Global instance (loaded lazily)
_translations: Optional[Translations] = None


def get_translations() -> Translations:
    """Get the global translations (lazy loaded)."""
    global _translations
    if _translations is None:
        _translations = load_translations()
    return _translations
