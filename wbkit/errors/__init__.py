"""Errors with stack traces, causes and codes, plus error aggregates and string sets."""