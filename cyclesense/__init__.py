"""CycleSense — menstrual cycle prediction and insight engine.

Subpackages:
    cycles/   — Statistics, population model, cycle analysis, prediction, insights
    models/   — Pydantic schemas for logged periods
    services/ — Period storage contract and in-memory store

Core modules:
    config — Application settings (environment / .env)
    main   — Logging setup and service bootstrap
"""

__version__ = "0.1.0"
