"""Django applications of the reservation engine."""
