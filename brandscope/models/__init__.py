# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
#   - analysis.py: agent contracts (AnalysisResult, EvaluationVerdict)
#   - requests.py: POST /analyze body
#   - responses.py: AnalyzeResult and API responses
# =============================================================================
