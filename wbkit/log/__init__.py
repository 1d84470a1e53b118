"""Structured logging with named loggers, bound fields, verbosity levels and options."""