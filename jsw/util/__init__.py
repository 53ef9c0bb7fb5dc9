from jsw.util.misc import now_iso, format_time, parse_time_input
