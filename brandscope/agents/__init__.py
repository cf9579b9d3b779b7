# =============================================================================
# Agents Package — Analyst/Evaluator Review Loop
# =============================================================================
#   - retrieval.py: Retrieval Tool, the Analyst's brand-search capability
#   - validation.py: raw model text → validated AnalysisResult / Verdict
#   - analyst.py: producer agent (JSON tool loop over an LLMProvider)
#   - evaluator.py: gatekeeper agent (approve or reject with feedback)
#   - orchestrator.py: fetch + ingest, then the bounded LangGraph loop
#
# Loop: analyse → evaluate → (approved | revise → analyse), max N attempts
# =============================================================================
