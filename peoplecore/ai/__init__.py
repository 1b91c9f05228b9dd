"""
PeopleCore HR Assistant
AI module.

Submodules:
    - gateway: LLM Gateway (provider routing, timeout, cost tracking)
    - prompts: system prompt, schema context, intent catalog
    - conversation: bounded chat history window
    - intents: model reply → typed intent
    - sql_guard: read-only validation + row-level security rewriting
    - formatter: results → prose
    - assistant: chat orchestrator
"""
