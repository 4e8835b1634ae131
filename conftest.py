import os

# Antes de importar config: base en memoria y sin rate limit para los tests
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
