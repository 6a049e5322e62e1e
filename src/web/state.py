import threading


class SharedState:
    """
    Singleton holding the viewer session shared between the detection loop
    and the FastAPI web server.
    """
    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(SharedState, cls).__new__(cls)
                    cls._instance.session = None
        return cls._instance

    def set_session(self, session):
        self.session = session

    def get_session(self):
        """Return the active session, or None before startup."""
        return self.session

# Global instance
state = SharedState()
