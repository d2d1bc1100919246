"""Pipeline stages.

Pre-index (``etl``)::

    sources → loader (permission phases) → extractor → extract.run_preindex

Reindex (``index``)::

    search → locations → definitions → chunks | spatial → publish.run_reindex
"""
