#!/usr/bin/env python3
"""Start a Celery worker for import and maintenance queues.

Superuser warnings are silenced for containerized environments. Pass
``--beat`` to also run the periodic reaper and purge schedule in-process.
"""

import sys
import warnings

from celery.bin import worker

warnings.filterwarnings('ignore', category=UserWarning, message='.*superuser privileges.*')
warnings.filterwarnings('ignore', category=RuntimeWarning, message='.*superuser privileges.*')

from catalog_ingest.workers.celery_app import celery_app  # noqa: E402

if __name__ == '__main__':
    worker_app = worker.worker(app=celery_app)

    sys.argv = [
        'celery',
        '-A', 'catalog_ingest.workers.celery_app.celery_app',
        'worker',
        '--loglevel=info',
        '--queues=imports,maintenance',
        '--pool=solo',
        '--without-mingle',
        '--without-gossip',
    ] + sys.argv[1:]

    worker_app.run()
