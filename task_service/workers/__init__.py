"""Job processing: handlers, processor, overdue scanner and worker wiring."""
