"""Constants for front-matter normalization and reference naming."""

# Language code -> English language name
LANGUAGE_NAMES = {
    "hi": "Hindi",
    "bn": "Bengali",
    "ta": "Tamil",
    "te": "Telugu",
    "ml": "Malayalam",
    "kn": "Kannada",
    "gu": "Gujarati",
    "mr": "Marathi",
    "pa": "Punjabi",
    "or": "Odia",
    "ur": "Urdu",
    "as": "Assamese",
    "en": "English",
}

# Language code -> name of the language in its own script
LANGUAGE_NATIVE_NAMES = {
    "hi": "हिन्दी",
    "bn": "বাংলা",
    "ta": "தமிழ்",
    "te": "తెలుగు",
    "ml": "മലയാളം",
    "kn": "ಕನ್ನಡ",
    "gu": "ગુજરાતી",
    "mr": "मराठी",
    "pa": "ਪੰਜਾਬੀ",
    "or": "ଓଡ଼ିଆ",
    "ur": "اردو",
    "as": "অসমীয়া",
    "en": "English",
}

# Languages written in Latin script; local names are title-cased for display
ROMAN_SCRIPT_LANGUAGES = frozenset({"en", "de", "fr", "es", "pt"})

# Front-matter aliases, highest priority first
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "title": ("title",),
    "local_title": ("local_title", "localTitle"),
    "author": ("author",),
    "category": ("category",),
    "sub_category": ("sub_category", "subCategory", "sub-category"),
    "lang": ("lang", "language"),
    "tags": ("tags",),
    "base_type": ("base_type", "baseType"),
    "series_title": ("series_title", "seriesTitle"),
    "episode": ("episode",),
    "article_type": ("article_type", "articleType"),
    "completed": ("completed",),
    "published": ("published",),
    "featured": ("featured",),
    "thumbnail": ("thumbnail",),
    "audio": ("audio",),
    "words": ("words",),
    "date": ("date",),
    "duration": ("duration",),
}

REQUIRED_FIELDS = ("title", "local_title", "author", "category", "lang")

BOOLEAN_FIELDS = ("completed", "published", "featured")

URL_FIELDS = ("thumbnail", "audio")

BASE_TYPES = frozenset({"article", "series"})

ARTICLE_TYPES = frozenset({"standard", "original", "original_pro"})

# Separators accepted when tags are given as a single string
TAG_SEPARATORS = r"[,;|]"

MARKDOWN_EXTENSIONS = (".md", ".mdx")

SHORT_DESCRIPTION_LENGTH = 150
