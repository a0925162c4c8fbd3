from bank_response.pipeline import PipelineRunner


def main() -> None:
    """Run the full bank marketing response pipeline."""
    runner = PipelineRunner("config/default.yaml")
    runner.run()


if __name__ == "__main__":
    main()
