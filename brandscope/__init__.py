# =============================================================================
# Brandscope — Video × Brand Relevance Analysis
# =============================================================================
# Takes a video (transcript, comments, engagement statistics) and a brand's
# public web page, and produces a brand-relevance and sentiment assessment
# with an optional engagement draft. Every result passes an automated
# quality review (Analyst → Evaluator revision loop) before it is returned.
#
# Package structure:
#   brandscope/
#   ├── api/          → FastAPI route handlers (analyze, health)
#   ├── agents/       → Analyst, Evaluator, Retrieval Tool, LangGraph loop
#   ├── models/       → Pydantic V2 schemas (agent contracts, responses)
#   └── services/     → Chunking, embedding, knowledge store, LLM providers,
#                        video and brand fetchers
# =============================================================================

__version__ = "0.1.0"
