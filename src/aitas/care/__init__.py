"""Care mode: time-boxed leniency entered via bulk reschedule."""
