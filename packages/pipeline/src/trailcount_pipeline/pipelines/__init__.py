"""
trailcount_pipeline.pipelines — Import orchestration.

    trail_counts.run_import(path, pool=pool)   one export, end to end
    poller.watch()                             the long-running poll loop
"""
