from lms_sync.cli.main import main

main()
