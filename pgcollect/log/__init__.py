"""\
.. currentmodule:: pgcollect.log

Postgres logs carry facts no system catalog keeps: execution plans captured by
``auto_explain``, autovacuum runs and deadlocks. :mod:`pgcollect.log`
extracts these facts from the recent part of a log file, once per collection
cycle.


Configuration
-------------

Postgres log records have a prefix, configured with ``log_line_prefix`` cluster
setting. The prefix must include a timestamp escape (``%t``, ``%m`` or
``%n``): timestamps delimit records and select the time window to read.
``%u`` and ``%d`` are captured as user and database names.


Performance
-----------

Log files can be huge while only the last minutes are needed. The reader
scans the file backward by blocks of 4kB until it finds a timestamp older than
the window, then reads forward from there. Records before the window are
dropped.


Limitations
-----------

Only ``text`` and ``json`` ``auto_explain`` formats are extracted. ``xml`` and
``yaml`` plans are recorded without query nor plan.

A deadlock report keeps only its first ``DETAIL`` line.


API Reference
-------------

.. autofunction:: read_log
.. autofunction:: read_log_file
.. autoclass:: PrefixPattern
.. autoclass:: LogEntry
.. autoclass:: Results
.. autoclass:: Plan
.. autoclass:: AutoVacuum
.. autoclass:: Deadlock


Example
-------

.. code-block:: python

    results = Results()
    settings = {'log_line_prefix': '%m [%p] %q%u@%d '}
    read_log('postgresql.log', settings, results, span=5)
    for plan in results.plans:
        print(plan.query)


Using :mod:`pgcollect.log` as a script
--------------------------------------

You can use this module to dump facts as JSON using the following usage::

    python -m pgcollect.log [--span MINUTES] <log_line_prefix> <filename>

.. code:: console

    $ python -m pgcollect.log --span 60 '%m [%p] %q%u@%d ' data/postgresql.log
    {"plans": [], "autovacuums": [{"at": 1529059706, "table": "postgres.public.orders", "elapsed": 0.12}], "deadlocks": []}

"""  # noqa

from .facts import AutoVacuum, Deadlock, Plan, Results, classify
from .prefix import PrefixPattern
from .reader import LogEntry, read_log, read_log_file


__all__ = [
    o.__name__  # type: ignore[attr-defined]
    for o in [
        AutoVacuum,
        Deadlock,
        LogEntry,
        Plan,
        PrefixPattern,
        Results,
        classify,
        read_log,
        read_log_file,
    ]
]
