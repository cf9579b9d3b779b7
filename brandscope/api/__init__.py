# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
#   - analyze.py: POST /analyze and GET /health
# =============================================================================
