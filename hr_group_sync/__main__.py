from hr_group_sync.main import main

main()
