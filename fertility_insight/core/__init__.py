"""
Core inference pipeline: knowledge tables, validation, clinical analysis,
success-rate prediction, result cache and orchestration.
"""
