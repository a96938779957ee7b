from hls_cache_proxy.main import run

# Run the application
if __name__ == "__main__":
    run()
