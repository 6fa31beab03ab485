"""
Services package for the workflow pipeline: orchestration and compilation.
"""
