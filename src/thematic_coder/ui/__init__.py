"""
Streamlit front-end. Rendering only; all rules live in thematic_coder.core.
"""
