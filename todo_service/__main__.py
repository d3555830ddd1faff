from todo_service.main import main

main()
