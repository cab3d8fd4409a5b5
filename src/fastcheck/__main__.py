from fastcheck.cli import main

main()
