"""Project-wide constants."""

# -- Query validation -------------------------------------------------------
MAX_QUERY_LENGTH: int = 200

# -- PubMed / NCBI ----------------------------------------------------------
NCBI_BASE_URL: str = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
PUBMED_ARTICLE_URL: str = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/"
PUBMED_PAGE_SIZE: int = 3
# NCBI allows 3 req/sec without an API key, 10 req/sec with one.
PUBMED_RATE_LIMIT: float = 3.0
PUBMED_CACHE_TTL: int = 3600  # 1 hour in seconds
PUBMED_USER_AGENT: str = "MedEvidence/0.1 (+https://pubmed.ncbi.nlm.nih.gov/)"

MONTH_NUMBERS: dict[str, str] = {
    "jan": "01",
    "feb": "02",
    "mar": "03",
    "apr": "04",
    "may": "05",
    "jun": "06",
    "jul": "07",
    "aug": "08",
    "sep": "09",
    "oct": "10",
    "nov": "11",
    "dec": "12",
}

# -- Base client defaults ---------------------------------------------------
DEFAULT_TIMEOUT: float = 30.0
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

# -- LLM --------------------------------------------------------------------
LLM_MODEL: str = "claude-haiku-4-5-20251001"
LLM_MAX_TOKENS: int = 1000
TRANSLATION_MAX_TOKENS: int = 100
QUESTIONS_MAX_TOKENS: int = 300
LLM_MAX_ATTEMPTS: int = 10
LLM_RETRY_DELAY: float = 1.0  # seconds
LLM_RETRY_MAX_DELAY: float = 30.0  # seconds
TRANSLATION_CACHE_TTL: int = 3600

# -- Follow-up questions ----------------------------------------------------
MAX_FOLLOW_UP_QUESTIONS: int = 3

# -- User-facing error messages, keyed by (error kind, language) ------------
ERROR_MESSAGES: dict[tuple[str, str], str] = {
    ("query_required", "ja"): "検索クエリを入力してください。",
    ("query_required", "en"): "query required",
    ("query_too_long", "ja"): f"検索クエリは{MAX_QUERY_LENGTH}文字以内で入力してください。",
    ("query_too_long", "en"): "query too long",
    ("summary_required", "ja"): "要約と前のクエリが必要です。",
    ("summary_required", "en"): "summary required",
    ("previous_query_required", "ja"): "要約と前のクエリが必要です。",
    ("previous_query_required", "en"): "previous query required",
    ("validation_error", "ja"): "入力内容が正しくありません。",
    ("validation_error", "en"): "invalid request",
    ("translation_error", "ja"): "検索クエリの翻訳中にエラーが発生しました。",
    ("translation_error", "en"): "An error occurred while translating the query.",
    ("literature_fetch_error", "ja"): "論文の検索中にエラーが発生しました。",
    ("literature_fetch_error", "en"): "An error occurred while searching the literature.",
    ("summarization_error", "ja"): "要約の生成中にエラーが発生しました。",
    ("summarization_error", "en"): "An error occurred while generating the summary.",
    ("timeout", "ja"): "検索がタイムアウトしました。しばらくしてから再度お試しください。",
    ("timeout", "en"): "The search timed out. Please try again later.",
    ("internal_error", "ja"): "内部サーバーエラーが発生しました。",
    ("internal_error", "en"): "An internal server error occurred.",
}
