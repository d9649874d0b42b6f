"""
Tape statistics.
Used to print and analyse how much a ChunkTape has recorded and allocated.
"""

from typing import Dict

from .tape import ChunkTape


def _log_stats(log) -> Dict:
    used = log.get_data_size()
    allocated = log.get_allocated_size()
    return {
        'records': used,
        'chunks': log.get_num_chunks(),
        'allocated_chunks': log.get_allocated_chunks(),
        'allocated_records': allocated,
        'chunk_size': log.get_chunk_size(),
        'bytes_used': used * log.record_nbytes(),
        'bytes_allocated': allocated * log.record_nbytes(),
    }


def get_tape_stats(tape: ChunkTape) -> Dict:
    """
    Collect tape statistics without printing.

    Args:
        tape: ChunkTape object

    Returns:
        Dict with one entry per log plus adjoint and index counters
    """
    handler = tape.index_handler
    return {
        'statements': _log_stats(tape.statements),
        'jacobians': _log_stats(tape.jacobians),
        'external_functions': _log_stats(tape.external_functions),
        'adjoints': tape.adjoints.size,
        'adjoint_bytes': tape.adjoints.data.nbytes,
        'max_index': handler.get_maximum_global_index(),
        'free_indices': handler.get_number_stored_indices(),
        'live_indices': handler.get_number_live_indices(),
        'active': tape.is_active(),
    }


def print_tape_summary(tape: ChunkTape) -> Dict:
    """
    Print a tape summary.

    Args:
        tape: ChunkTape object

    Returns:
        Dict with the statistics that were printed
    """
    stats = get_tape_stats(tape)

    print("\n" + "="*70)
    print("TAPE SUMMARY")
    print("="*70)
    print(f"Recording:          {'active' if stats['active'] else 'passive'}")
    for key in ('statements', 'jacobians', 'external_functions'):
        log = stats[key]
        print(f"{key + ':':20s}{log['records']:,} records in {log['chunks']} chunk(s) "
              f"({log['allocated_records']:,} allocated, {log['bytes_used']:,} bytes used)")
    print(f"Adjoints:           {stats['adjoints']:,} ({stats['adjoint_bytes']:,} bytes)")
    print(f"Max index:          {stats['max_index']:,}")
    print(f"Live indices:       {stats['live_indices']:,}")
    print(f"Free indices:       {stats['free_indices']:,}")
    print("="*70 + "\n")

    return stats
