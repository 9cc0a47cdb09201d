"""
Document repair pipelines.

mermaid_repair - validate fenced Mermaid blocks and fix broken ones with a
                 bounded LLM correction loop, then splice fixes back into
                 the document
"""
