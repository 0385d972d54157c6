"""
Pipeline services: normalization, filtering, credential refresh, record
sources, slice walking, batch sending, job storage and orchestration.
"""
