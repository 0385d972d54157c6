"""Package marker for the sync runner service.

Runs Vincere -> ActiveCampaign bulk imports and streams their progress.
"""

__version__ = "0.1.0"
