# CounterPOS live smoke suite (runs only when TEST_BACKEND_URL is set)
