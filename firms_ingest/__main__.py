from firms_ingest.cli import main

main()
