"""Hunter pipeline: job store, stage workers, platform/scan status machine.

Submodules are imported directly (``from app.pipeline.job_store import ...``);
the models import ``app.pipeline.states`` so this package stays import-light.
"""
