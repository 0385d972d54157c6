"""
Core bulk-import pipeline for the recruitment operations service.

Moves contact records out of the Vincere ATS (distribution lists and
talent pools) into ActiveCampaign, with deduplication, progress tracking
and single-shot token refresh on expired credentials.
"""
