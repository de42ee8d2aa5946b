import os

# Logging level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Retail product database, queried with ?upc=<barcode>
UPCITEMDB_URL = os.getenv("UPCITEMDB_URL", "https://api.upcitemdb.com/prod/trial/lookup")

# openFDA drug label endpoint, searched with openfda.upc:<barcode>
OPENFDA_LABEL_URL = os.getenv("OPENFDA_LABEL_URL", "https://api.fda.gov/drug/label.json")

# RxNav NDC properties endpoint, queried with ?id=<formatted NDC>
RXNAV_NDC_URL = os.getenv("RXNAV_NDC_URL", "https://rxnav.nlm.nih.gov/REST/ndcproperties.json")

# OpenAI-compatible chat completions endpoint for label interpretation
OPENAI_API_URL = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1/chat/completions")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")

# Per-request timeouts in seconds
LOOKUP_TIMEOUT = float(os.getenv("LOOKUP_TIMEOUT", "10"))
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "30"))

# Remember successful barcode lookups; oldest entries are evicted past the size cap
LOOKUP_CACHE_ENABLED = os.getenv("LOOKUP_CACHE_ENABLED", "true").lower() in ("1", "true", "yes")
LOOKUP_CACHE_SIZE = int(os.getenv("LOOKUP_CACHE_SIZE", "256"))
